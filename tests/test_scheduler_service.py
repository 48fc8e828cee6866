from bunkhouse.services.scheduler_service import SchedulerService


def test_register_jobs():
    service = SchedulerService()
    service.register_jobs()
    service.register_jobs()

    assert sorted(job.id for job in service.get_jobs()) == ["weekly_windows", "window_opener"]
