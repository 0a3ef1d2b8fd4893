"""Controller, device and HomeKit services"""
