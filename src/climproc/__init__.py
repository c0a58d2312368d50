"""climproc — PBS job script generator for climate data processing.

Turns a YAML description of which climate variables each dataset must
provide, and in what processed form, into PBS job scripts plus one
submission script per dataset that ``qsub``s every job with
``-W depend=afterok`` chaining. Producers are ordered by a topological sort
of their declared dependencies; adding a derived variable requires only a
YAML processor entry.

Typical usage::

    from climproc.config import ProcessingConfig
    from climproc.datasets import ClimateDataset
    from climproc.orchestrator import ScriptOrchestrator

    cfg          = ProcessingConfig.from_yaml("/g/data/ab12/climproc.yaml")
    orchestrator = ScriptOrchestrator(cfg)
    scripts      = [
        orchestrator.generate_scripts(ClimateDataset.from_spec(spec, cfg))
        for spec in cfg.datasets
    ]
    wrapper      = ScriptOrchestrator.generate_wrapper_script(cfg.output_directory, scripts)
"""

__version__ = "0.1.0"
