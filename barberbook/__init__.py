"""Barbershop booking backend: booking groups, availability and scheduled notifications"""
