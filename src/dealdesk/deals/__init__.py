"""Deal lifecycle module -- schemas, pure domain rules, stores and the workflow.

Provides the stage-progress calculator, audit trail appender, roster
mutators and opportunity state machine as pure functions, the DealStore
protocol with SQLAlchemy (DealRepository) and REST (DealApiClient)
implementations, and DealWorkflow, which performs every deal mutation.
"""
