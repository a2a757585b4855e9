from src.config_model.model import load_config
cfg = load_config()  # reads config/config.toml by default
print("Project:", cfg.env.project_name)
print("Inputs:", ", ".join(cfg.job.input_paths) or "-")
print("Output:", cfg.job.output_path)
print("Feature schema:", cfg.feature_schema.feature_schema_file_path)
print("Pairs:", cfg.job.source_attributes, "x", cfg.job.dest_attributes)
print("Reducers:", cfg.job.num_reducers, "| executor:", cfg.job.executor)
print("Correlation scale:", cfg.scoring.correlation_scale)
