"""Agenda domain - appointments, date ranges and the time-grid layout"""
