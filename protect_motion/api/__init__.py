"""HTTP API"""
