"""Clinic appointment booking: slot capacity and availability."""
