"""Lab requests domain - Doctor test orders sent to laboratories"""
