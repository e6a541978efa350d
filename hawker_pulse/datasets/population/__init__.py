"""
Hawker Pulse - Population Dataset

Census 2020 resident population per subzone (demand).

Components:
    - PopulationIngester: Fetches the census table
    - PopulationPreprocessor: Normalizes names, totals and years
    - PopulationPipeline: Matches names to zones and applies the batch
"""

from hawker_pulse.datasets.population.ingest import PopulationIngester
from hawker_pulse.datasets.population.pipeline import PopulationPipeline
from hawker_pulse.datasets.population.preprocess import PopulationPreprocessor

__all__ = [
    "PopulationIngester",
    "PopulationPipeline",
    "PopulationPreprocessor",
]
