from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Tuple, cast

import os
import yaml


# ---- Strict dataclasses (no defaults; everything must come from YAML) ----

@dataclass
class IngestConfig:
    certstream_url: str


@dataclass
class ProcessorConfig:
    workers: int


@dataclass
class SuffixListConfig:
    offline: bool
    cache_dir: Optional[str]


@dataclass
class OutputConfig:
    log_path: str


@dataclass
class Counter:
    enable: bool
    interval_s: int


@dataclass
class LoggingConfig:
    verbose: bool
    json: bool


@dataclass
class Config:
    DEFAULT_PATH: ClassVar[str] = "config.yaml"
    ENV_VAR: ClassVar[str] = "PHISHWATCH_CONFIG"

    ingester: IngestConfig
    processor: ProcessorConfig
    suffix_list: SuffixListConfig
    output: OutputConfig
    counter: Counter
    logging: LoggingConfig
    # Keys are the brand/keyword strings; values are ignored.
    keywords: Tuple[str, ...]

    # ---- Strict loader helpers ----
    @staticmethod
    def _require_dict(d: Dict[str, Any], key: str) -> Dict[str, Any]:
        if key not in d or not isinstance(d[key], dict):
            raise ValueError(f"Missing or invalid '{key}' section in config.yaml")
        return d[key]

    @staticmethod
    def _require(d: Dict[str, Any], key: str) -> Any:
        if key not in d:
            raise ValueError(f"Missing '{key}' in config.yaml")
        return d[key]

    @staticmethod
    def _keywords(raw: Dict[str, Any]) -> Tuple[str, ...]:
        keywords_raw: Dict[str, Any] = Config._require_dict(raw, "keywords")
        keywords: List[str] = []
        for key in keywords_raw:
            keyword = str(key)
            if not keyword:
                raise ValueError("Empty keyword in config.yaml")
            if keyword not in keywords:
                keywords.append(keyword)
        if not keywords:
            raise ValueError("No keywords configured in config.yaml")
        return tuple(keywords)

    @staticmethod
    def load(path: Optional[str] = None) -> "Config":
        cfg_path = path or os.environ.get(Config.ENV_VAR) or Config.DEFAULT_PATH
        if not os.path.exists(cfg_path):
            raise FileNotFoundError(f"Config file not found: {cfg_path}")

        with open(cfg_path, "r", encoding="utf-8") as f:
            try:
                raw_any: Any = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {cfg_path}: {e}") from e
        if not isinstance(raw_any, dict):
            raise ValueError("Top-level YAML structure must be a mapping")
        raw: Dict[str, Any] = cast(Dict[str, Any], raw_any)

        # ---- Ingest config ----
        ingester_raw = Config._require_dict(raw, "ingester")
        ingester = IngestConfig(
            certstream_url=str(Config._require(ingester_raw, "certstream_url")),
        )

        # ---- Processor config ----
        processor_raw = Config._require_dict(raw, "processor")
        workers = int(Config._require(processor_raw, "workers"))
        if workers < 1:
            raise ValueError("processor.workers must be at least 1")
        processor = ProcessorConfig(workers=workers)

        # ---- Suffix list ----
        suffix_raw = Config._require_dict(raw, "suffix_list")
        cache_dir_val: Optional[Any] = Config._require(suffix_raw, "cache_dir")
        suffix_list = SuffixListConfig(
            offline=bool(Config._require(suffix_raw, "offline")),
            cache_dir=None if cache_dir_val is None else str(cache_dir_val),
        )

        # ---- Output ----
        output_raw = Config._require_dict(raw, "output")
        output = OutputConfig(log_path=str(Config._require(output_raw, "log_path")))

        # ---- Counter ----
        counter_raw = Config._require_dict(raw, "counter")
        counter = Counter(
            enable=bool(Config._require(counter_raw, "enable")),
            interval_s=int(Config._require(counter_raw, "interval_s")),
        )

        # ---- Logging ----
        logging_raw = Config._require_dict(raw, "logging")
        logging_cfg = LoggingConfig(
            verbose=bool(Config._require(logging_raw, "verbose")),
            json=bool(Config._require(logging_raw, "json")),
        )

        return Config(
            ingester=ingester,
            processor=processor,
            suffix_list=suffix_list,
            output=output,
            counter=counter,
            logging=logging_cfg,
            keywords=Config._keywords(raw),
        )
