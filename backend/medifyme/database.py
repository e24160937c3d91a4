# medifyme/database.py
#
# This module is responsible for initializing the document store connection
# and creating table resources. It centralizes all database setup.

import logging
import os
from typing import Optional

import boto3

logger = logging.getLogger(__name__)

# --- DynamoDB Configuration ---
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL")
PATIENTS_TABLE_NAME = os.getenv("PATIENTS_TABLE_NAME", "Patients")
DOCTORS_TABLE_NAME = os.getenv("DOCTORS_TABLE_NAME", "Doctors")
REQUESTS_TABLE_NAME = os.getenv("REQUESTS_TABLE_NAME", "Requests")
VISITS_TABLE_NAME = os.getenv("VISITS_TABLE_NAME", "Visits")
PRESCRIPTIONS_TABLE_NAME = os.getenv("PRESCRIPTIONS_TABLE_NAME", "Prescriptions")
TESTS_TABLE_NAME = os.getenv("TESTS_TABLE_NAME", "Tests")

# Name of the global secondary index on `email` for Patients and Doctors
EMAIL_INDEX_NAME = os.getenv("EMAIL_INDEX_NAME", "Index-email")


class Store:
    """
    Holds one table resource per record type.

    Workflows receive a Store at construction instead of reaching for
    module-level tables, so tests can hand in any object exposing `.Table()`.
    """

    def __init__(self, resource=None):
        if resource is None:
            resource = boto3.resource(
                "dynamodb",
                region_name=AWS_REGION,
                endpoint_url=DYNAMODB_ENDPOINT_URL or None,
            )
        self.resource = resource
        self.patients = resource.Table(PATIENTS_TABLE_NAME)
        self.doctors = resource.Table(DOCTORS_TABLE_NAME)
        self.requests = resource.Table(REQUESTS_TABLE_NAME)
        self.visits = resource.Table(VISITS_TABLE_NAME)
        self.prescriptions = resource.Table(PRESCRIPTIONS_TABLE_NAME)
        self.tests = resource.Table(TESTS_TABLE_NAME)

    def close(self):
        client = getattr(getattr(self.resource, "meta", None), "client", None)
        if client is not None and hasattr(client, "close"):
            client.close()


_store: Optional[Store] = None


def get_store() -> Store:
    """FastAPI dependency returning the process-wide Store, opened on first use."""
    global _store
    if _store is None:
        logger.info("DB: Opening DynamoDB store in region %s", AWS_REGION)
        _store = Store()
    return _store


def close_store():
    global _store
    if _store is not None:
        logger.info("DB: Closing DynamoDB store")
        _store.close()
        _store = None
