import asyncio
import sys

import pytest

from imgsync.infrastructure.process import ProcessRunner


class TestProcessRunner:
    async def test_captures_output_and_exit_code(self):
        result = await ProcessRunner().run(
            [sys.executable, "-c", "import sys; print('out'); sys.stderr.write('err'); sys.exit(3)"]
        )

        assert result.returncode == 3
        assert not result.ok
        assert result.stdout.strip() == b"out"
        assert result.stderr_tail() == "err"

    async def test_environment_is_merged(self):
        result = await ProcessRunner().run(
            [sys.executable, "-c", "import os; print(os.environ['IMGSYNC_TEST'])"],
            env={"IMGSYNC_TEST": "value"},
        )

        assert result.stdout.strip() == b"value"

    async def test_timeout_kills_the_process(self):
        with pytest.raises(TimeoutError):
            await ProcessRunner().run(
                [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5
            )

    async def test_missing_executable(self):
        with pytest.raises(OSError):
            await ProcessRunner().run(["imgsync-definitely-not-installed"])

    async def test_cancellation_propagates(self):
        task = asyncio.create_task(
            ProcessRunner().run([sys.executable, "-c", "import time; time.sleep(30)"])
        )
        await asyncio.sleep(0.2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
