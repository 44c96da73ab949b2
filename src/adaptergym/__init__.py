"""AdapterGym: supervised adapter fine-tuning with held-out model selection."""

__version__ = "0.1.0"
