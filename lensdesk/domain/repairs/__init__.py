"""Repairs domain - repair tickets, creation wizards and dashboard analytics"""
