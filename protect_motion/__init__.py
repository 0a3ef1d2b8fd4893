"""Protect motion bridge: UniFi Protect cameras as HomeKit motion sensors"""
