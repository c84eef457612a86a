"""Appointments domain - Booking, status changes and cancellation refunds"""
