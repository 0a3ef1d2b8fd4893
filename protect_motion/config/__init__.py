"""Integration configuration"""
