"""
Hawker Pulse - Datasets

One package per dataset kind (subzones, population, hawker_centres,
mrt_exits, bus_stops), each with an ingester, a preprocessor and a pipeline
built on the base classes in datasets.base. The orchestrator module runs them.
"""
