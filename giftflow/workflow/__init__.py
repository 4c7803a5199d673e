"""
The gift workflow: context, batching, steps and pipelines.

Every step is idempotent over the checkpointed state, so an interrupted run is
resumed by running it again.
"""
