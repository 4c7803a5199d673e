"""
Workflow configuration loading and validation.

Turns the workflow JSON file (plus credentials from the environment) into
strongly typed, frozen settings objects, validated before any external call.
"""
