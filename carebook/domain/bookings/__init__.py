"""Bookings domain - Booking lifecycle, status transitions and recurring series"""
