"""
Monitoring module for the puzzle engine.
Handles logging setup and CloudWatch metrics.
"""

import os
import boto3
import logging
from datetime import datetime, timezone
from typing import Dict, Optional
from botocore.exceptions import BotoCoreError, ClientError
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Configure the root logger (level from LOG_LEVEL, default INFO).

    When a log directory is given (or LOG_DIR is set) records also go to game.log there.
    """
    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).strip().upper()
    log_level = getattr(logging, level_name, logging.INFO)
    handlers = [logging.StreamHandler()]
    log_dir = log_dir or os.getenv('LOG_DIR')
    if log_dir:
        logs_path = Path(log_dir)
        logs_path.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logs_path / 'game.log'))
    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger('wordlink').setLevel(log_level)
    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(max(log_level, logging.WARNING))


class EngineMonitor:
    def __init__(self, environment: str = 'Development', enabled: bool = False):
        self.environment = environment
        self.enabled = enabled
        self._cloudwatch = None

        # Metric constants
        self.namespace = f"WordLink/{environment}"

    @property
    def cloudwatch(self):
        if self._cloudwatch is None:
            self._cloudwatch = boto3.client('cloudwatch')
        return self._cloudwatch

    def put_metric(self, metric_name: str, value: float, unit: str,
                   dimensions: Optional[Dict[str, str]] = None) -> None:
        """
        Put a metric to CloudWatch.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (e.g., 'Count', 'Milliseconds')
            dimensions: Optional dictionary of dimension name-value pairs
        """
        if not self.enabled:
            return
        try:
            metric_data = {
                'MetricName': metric_name,
                'Value': value,
                'Unit': unit,
                'Timestamp': datetime.now(timezone.utc)
            }

            if dimensions:
                metric_data['Dimensions'] = [
                    {'Name': k, 'Value': v} for k, v in dimensions.items()
                ]

            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )
            logger.debug(f"Published metric {metric_name}: {value} {unit}")

        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to publish metric {metric_name}: {str(e)}")

    def track_error(self, error_type: str) -> None:
        """Track error occurrence."""
        self.put_metric(
            metric_name='Errors',
            value=1,
            unit='Count',
            dimensions={'ErrorType': error_type}
        )

    def track_generation(self, duration_ms: float, steps: int) -> None:
        """Track a successful puzzle generation."""
        self.put_metric(
            metric_name='GenerationDuration',
            value=duration_ms,
            unit='Milliseconds'
        )
        self.put_metric(
            metric_name='PuzzleSteps',
            value=steps,
            unit='Count'
        )

    def track_api_quota(self, remaining: int) -> None:
        """Track remaining oracle calls for the day."""
        self.put_metric(
            metric_name='APIQuotaRemaining',
            value=remaining,
            unit='Count'
        )

    def track_cache(self, hits: int, misses: int) -> None:
        self.put_metric(metric_name='CacheHits', value=hits, unit='Count')
        self.put_metric(metric_name='CacheMisses', value=misses, unit='Count')


# Global monitor instance
monitor = EngineMonitor(
    os.getenv('ENVIRONMENT', 'Development'),
    enabled=os.getenv('ENABLE_CLOUDWATCH', 'false').strip().lower() in ('1', 'true', 'yes', 'on'),
)
