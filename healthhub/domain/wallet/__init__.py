"""Wallet domain - Balances, transactions and booking deposits"""
