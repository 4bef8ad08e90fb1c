"""
Predictive-maintenance pipeline.

A sensor reading flows through five stages (Detector, Diagnoser,
Planner, Validator, Notifier) with two decision gates, each stage
recording its reasoning trail and persisting its result.  The entry
point is app.pipeline.engine.PipelineEngine.
"""
