"""Scheduling domain - Working hours, slots, blocked slots and time off"""
