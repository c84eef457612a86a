"""POS domain - Cash drawers, checkout and Chifa claims"""
