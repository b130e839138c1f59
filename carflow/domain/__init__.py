"""Domain packages: vehicles, customers, bookings and invoices"""
