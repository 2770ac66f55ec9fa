# Services package init
"""
PetMatch Backend - Services Layer
=================================

What:  Business logic layer sitting between routes (HTTP) and the database.
How:   Services receive a session and the acting principal, apply the
       business rules, stage ORM changes and return response schemas.

Service Inventory:
    - lifecycle:        Adoption status graph and visit rules (pure functions)
    - permissions:      Role / ownership authorization table and the Actor type
    - timeline:         Append-only timeline entries and the audit logger
    - AdoptionService:  Submission, transitions, visits, fees, payments
    - ActivityService:  Activity registration with capacity and waitlist
"""
