"""Clinic application for the telehealth backend.

This package contains models, services, serializers, views, route
registrations and the real-time consumers for patient/doctor
consultations, their payments and chat messages.
"""
