"""Supplier domain - B2B purchase orders and supplier audit trail"""
