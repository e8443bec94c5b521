import threading

import pytest

from docmirror.crawler import EnqueueStatus, Frontier, QueuedURL


ROOT = "https://docs.example.com/documentation"


def make_frontier(**overrides) -> Frontier:
    options = {"max_depth": 3, "max_pages": 100, "allowed_prefixes": [ROOT]}
    options.update(overrides)
    return Frontier(**options)


def test_fifo_order_and_visited_marked_on_dequeue():
    frontier = make_frontier()
    frontier.enqueue(ROOT, 0)
    frontier.enqueue(f"{ROOT}/a", 1)

    assert frontier.visited_urls() == set()
    assert frontier.dequeue() == QueuedURL(ROOT, 0)
    assert frontier.visited_urls() == {ROOT}
    assert frontier.dequeue() == QueuedURL(f"{ROOT}/a", 1)
    assert frontier.dequeue() is None


def test_duplicate_discoveries_dequeue_once():
    frontier = make_frontier()
    first = frontier.enqueue(f"{ROOT}/a", 1)
    pending = frontier.enqueue(f"{ROOT}/a/", 1)

    assert first.accepted
    assert pending.status == EnqueueStatus.SKIPPED_PENDING

    frontier.dequeue()
    assert frontier.enqueue(f"{ROOT}/a#frag", 2).status == EnqueueStatus.SKIPPED_VISITED
    assert len(frontier) == 0


@pytest.mark.parametrize(
    "url, depth, status",
    [
        ("not-a-url", 1, EnqueueStatus.SKIPPED_INVALID_URL),
        ("https://other.example.com/documentation", 1, EnqueueStatus.SKIPPED_OUT_OF_SCOPE),
        (f"{ROOT}/deep", 4, EnqueueStatus.SKIPPED_DEPTH),
    ],
)
def test_rejections(url, depth, status):
    frontier = make_frontier()
    result = frontier.enqueue(url, depth)
    assert result.status == status
    assert not result.accepted
    assert len(frontier) == 0


def test_depth_equal_to_max_is_accepted():
    frontier = make_frontier(max_depth=3)
    assert frontier.enqueue(f"{ROOT}/deep", 3).accepted


def test_page_budget_counts_every_accepted_url():
    frontier = make_frontier(max_pages=2)
    assert frontier.enqueue(ROOT, 0).accepted
    frontier.dequeue()
    assert frontier.enqueue(f"{ROOT}/a", 1).accepted
    assert frontier.enqueue(f"{ROOT}/b", 1).status == EnqueueStatus.SKIPPED_BUDGET
    frontier.dequeue()
    assert frontier.empty()
    assert frontier.snapshot()["accepted"] == 2


def test_restore_drops_visited_queue_entries_and_charges_budget():
    frontier = make_frontier(max_pages=3)
    frontier.restore(
        visited={ROOT},
        queue=[QueuedURL(ROOT, 0), QueuedURL(f"{ROOT}/a", 1), QueuedURL(f"{ROOT}/a", 1)],
    )

    assert frontier.pending() == [QueuedURL(f"{ROOT}/a", 1)]
    assert frontier.visited_urls() == {ROOT}
    assert frontier.enqueue(f"{ROOT}/b", 1).accepted
    assert frontier.enqueue(f"{ROOT}/c", 1).status == EnqueueStatus.SKIPPED_BUDGET


def test_seed_bypasses_prefix_scope():
    frontier = make_frontier(allowed_prefixes=[f"{ROOT}/swiftui"])

    assert frontier.enqueue(ROOT, 0).status == EnqueueStatus.SKIPPED_OUT_OF_SCOPE
    assert frontier.enqueue(ROOT, 0, check_scope=False).accepted
    assert frontier.pending() == [QueuedURL(ROOT, 0)]


def test_concurrent_enqueue_accepts_each_url_once():
    frontier = make_frontier(max_pages=1000)
    urls = [f"{ROOT}/page-{idx}" for idx in range(200)]

    def worker():
        frontier.enqueue_many(urls, 1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(frontier) == 200
    snapshot = frontier.snapshot()
    assert snapshot["enqueued"] == 200
    assert snapshot["skipped_pending"] == 7 * 200
