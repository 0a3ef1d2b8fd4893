"""Core settings, logging, metrics and exceptions"""
