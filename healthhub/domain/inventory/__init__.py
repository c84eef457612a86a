"""Inventory domain - Pharmacy catalog, stock batches, adjustments and alerts"""
