"""Cases domain - support cases and their links to emails, orders and repairs"""
