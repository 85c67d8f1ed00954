"""Scheduling domain - Provider weekly operating hours and slot availability"""
