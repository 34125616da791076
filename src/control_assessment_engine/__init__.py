"""Compliance assessment execution engine.

The engine lives in control_assessment_engine.evaluation. Applications call
observability.configure_logging once at startup, before running any
evaluation, to apply the log_level and log_json settings:

    from control_assessment_engine.observability import configure_logging
    from control_assessment_engine.settings import get_settings

    configure_logging(get_settings())
"""
