"""
Services package - Business logic layer.

This package contains all business logic services. They operate on Django
models through the ride repository but are decoupled from the HTTP layer.

Modules:
    - ride_management: Seat inventory, booking and demand/offer workflows
    - matching: Compatibility scoring, preference profiling and ranking
    - trust: User trust and behaviour-risk scoring
"""
