import os
from dataclasses import dataclass

DEFAULT_APP_NAME = "migrate-block-index"
DEFAULT_SCAN_BATCH_SIZE = 500  # max sqs msg is 256KB, each record is ~350 bytes
DEFAULT_MIN_REMAINING_TIME_MS = 10_000  # below this the scanner hands over to a continuation
DEFAULT_MAX_RETRY_ATTEMPTS = 10


@dataclass(frozen=True)
class MigrationConfig:
    """
    Settings shared by the scanner, the consumer and the admin scripts.

    Components get this passed in at construction; only `from_env` looks at
    the process environment.
    """
    stage: str
    src_table: str = ""
    dst_table: str = ""
    batch_queue_url: str = ""
    unprocessed_queue_url: str = ""
    app_name: str = DEFAULT_APP_NAME
    scan_batch_size: int = DEFAULT_SCAN_BATCH_SIZE
    min_remaining_time_ms: int = DEFAULT_MIN_REMAINING_TIME_MS
    max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS

    @classmethod
    def from_env(cls, *required, environ=None):
        """
        Build a config from env vars. Names in `required` (e.g. "SRC_TABLE")
        must be set, a missing one raises KeyError.
        """
        env = os.environ if environ is None else environ
        for name in ("STAGE",) + required:
            if not env.get(name):
                raise KeyError(f"{name} must be defined in env")

        return cls(
            stage=env["STAGE"],
            src_table=env.get("SRC_TABLE", ""),
            dst_table=env.get("DST_TABLE", ""),
            batch_queue_url=env.get("BATCH_QUEUE_URL", ""),
            unprocessed_queue_url=env.get("UNPROCESSED_QUEUE_URL", ""),
            app_name=env.get("APP_NAME", DEFAULT_APP_NAME),
            scan_batch_size=int(env.get("SCAN_BATCH_SIZE", DEFAULT_SCAN_BATCH_SIZE)),
            min_remaining_time_ms=int(env.get("MIN_REMAINING_TIME_MS", DEFAULT_MIN_REMAINING_TIME_MS)),
            max_retry_attempts=int(env.get("MAX_RETRY_ATTEMPTS", DEFAULT_MAX_RETRY_ATTEMPTS)),
        )

    @property
    def checkpoint_prefix(self):
        return f"/{self.app_name}/{self.stage}"

    def cursor_key(self, total_segments, segment):
        return f"{self.checkpoint_prefix}/last-evaluated/{total_segments}/{segment}"

    @property
    def stop_key(self):
        # presence of this parameter stops every segment, its value is ignored
        return f"{self.checkpoint_prefix}/stop"
