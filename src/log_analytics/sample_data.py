"""
Practice data generation and fallback sample lines.
"""

import logging
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union


logger = logging.getLogger(__name__)

IPS_PER_SUBNET = 254
METHODS = ["GET", "POST", "PUT", "DELETE"]
PATHS = ["/", "/api/users", "/api/products", "/login", "/logout", "/admin", "/search?q=item"]
STATUSES = [200, 200, 200, 201, 304, 404, 500, 403]
LEVELS = ["INFO", "INFO", "WARN", "ERROR", "FATAL"]
APP_MESSAGES = [
    "Database connection timeout",
    "User authentication failed",
    "File not found: config.yml",
    "Memory usage exceeds threshold",
    "API rate limit exceeded",
]

SAMPLE_SYSLOG_LINES = [
    "Jan 15 10:23:45 server1 sshd[1234]: Failed password for root from 192.168.1.100",
    "Jan 15 10:24:12 server1 kernel: Out of memory: Kill process 5678",
    "Jan 15 10:25:30 server1 systemd[1]: Started Application Server",
    "Jan 15 10:26:45 server1 app[9012]: ERROR: Database connection timeout",
    "Jan 15 10:27:15 server1 sshd[3456]: Accepted publickey for admin from 192.168.1.50",
]

SAMPLE_ACCESS_LINES = [
    '192.168.1.10 - - [15/Jan/2024:09:12:01 +0000] "GET / HTTP/1.1" 200 512',
    '192.168.1.11 - - [15/Jan/2024:09:15:22 +0000] "GET /api/users HTTP/1.1" 200 1024',
    '192.168.1.10 - - [15/Jan/2024:10:02:45 +0000] "POST /login HTTP/1.1" 302 128',
    '10.0.0.5 - - [15/Jan/2024:10:05:13 +0000] "GET /admin HTTP/1.1" 403 64',
    '10.0.0.5 - - [15/Jan/2024:10:05:14 +0000] "GET /missing?id=1 HTTP/1.1" 404 -',
    '192.168.1.12 - - [15/Jan/2024:11:45:00 +0000] "GET /api/products HTTP/1.1" 500 256',
]

SAMPLE_APP_LINES = [
    "2024-01-15 14:00:01 [INFO] Application started",
    "2024-01-15 14:02:10 [WARNING] Slow query detected",
    "2024-01-15 14:03:00 [ERROR] Database connection timeout",
    "2024-01-15 14:03:30 [ERROR] Database connection timeout",
    "2024-01-15 15:10:45 [ERROR] User authentication failed",
    "2024-01-15 15:11:00 [INFO] Retrying request",
]

SAMPLE_LINES: Dict[str, List[str]] = {
    "access": SAMPLE_ACCESS_LINES,
    "app": SAMPLE_APP_LINES,
    "syslog": SAMPLE_SYSLOG_LINES,
}


def sample_lines(preset: str) -> List[str]:
    """Built-in fallback lines for a preset."""
    return list(SAMPLE_LINES.get(preset, SAMPLE_ACCESS_LINES))


class DataGenerator:
    """Generates practice log files."""

    def __init__(self, seed: Optional[int] = None, now: Optional[datetime] = None) -> None:
        """
        Initialize data generator.

        Args:
            seed: Random seed for reproducible output
            now: Reference time; generated timestamps fall in the day before it
        """
        self._random = random.Random(seed)
        self._now = now or datetime.now()

    def _timestamp(self) -> datetime:
        return self._now - timedelta(seconds=self._random.randint(0, 86400))

    def access_log_lines(self, count: int = 500) -> Iterator[str]:
        """Common log format lines."""
        for _ in range(count):
            ip = f"192.168.{self._random.randint(1, 10)}.{self._random.randint(1, IPS_PER_SUBNET)}"
            timestamp = self._timestamp().strftime("%d/%b/%Y:%H:%M:%S +0000")
            method = self._random.choice(METHODS)
            path = self._random.choice(PATHS)
            status = self._random.choice(STATUSES)
            size = self._random.randint(100, 5000)
            yield f'{ip} - - [{timestamp}] "{method} {path} HTTP/1.1" {status} {size}'

    def app_log_lines(self, count: int = 100) -> Iterator[str]:
        """Application log lines in `[timestamp] LEVEL: message` form."""
        for _ in range(count):
            timestamp = self._timestamp().strftime("%Y-%m-%d %H:%M:%S")
            level = self._random.choice(LEVELS)
            message = self._random.choice(APP_MESSAGES)
            yield f"[{timestamp}] {level}: {message}"

    def syslog_lines(self, count: int = 100) -> Iterator[str]:
        """Syslog lines built from the fallback samples with fresh timestamps."""
        for _ in range(count):
            template = self._random.choice(SAMPLE_SYSLOG_LINES)
            timestamp = self._timestamp().strftime("%b %d %H:%M:%S")
            yield f"{timestamp}{template[15:]}"

    def write_all(self, output_dir: Union[str, Path], lines: int = 500) -> List[Path]:
        """
        Write access.log, error.log and syslog.log into output_dir.

        Returns:
            Paths of the written files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        outputs = {
            "access.log": self.access_log_lines(lines),
            "error.log": self.app_log_lines(lines),
            "syslog.log": self.syslog_lines(lines),
        }

        written = []
        for filename, generated in outputs.items():
            path = output_dir / filename
            with open(path, "w", encoding="utf-8") as f:
                for line in generated:
                    f.write(line + "\n")
            written.append(path)
            logger.info(f"Generated {lines} lines in {path}")

        return written
