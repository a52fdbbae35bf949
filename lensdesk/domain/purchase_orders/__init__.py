"""Purchase orders domain - supplier orders, line items and their files"""
