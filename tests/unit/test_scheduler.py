from pooldose.scheduler.scheduler import DOSING_JOB_ID, DosingScheduler


async def test_dosing_job_never_overlaps():
    scheduler = DosingScheduler(interval_seconds=60)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job(DOSING_JOB_ID)

        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
        assert job.trigger.interval.total_seconds() == 60
    finally:
        scheduler.stop()

    assert scheduler.running is False
