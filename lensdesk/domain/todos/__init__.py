"""Todos domain - personal and team tasks linked to orders, cases and repairs"""
