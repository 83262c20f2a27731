#!/usr/bin/env python
"""
Test runner script for the full backend suite
Usage: python Doc/run_tests.py
"""
import os
import sys
import django
from django.conf import settings
from django.test.utils import get_runner

if __name__ == "__main__":
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    failures = test_runner.run_tests([
        'backend.core',
        'backend.tenants',
        'backend.locations',
        'backend.catalog',
        'backend.inventory',
        'backend.checklists',
        'backend.purchasing',
        'backend.dashboard',
    ])
    sys.exit(bool(failures))
