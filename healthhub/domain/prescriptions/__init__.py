"""Prescriptions domain - Medications prescribed during an appointment"""
