"""Messaging domain - Conversations between patients, providers and staff"""
