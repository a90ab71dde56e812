import pytest

from sirconkit.cache import SEPARATOR, CachedData


def test_new_cache_is_unset(tmp_path):
    cache = CachedData("fresh.txt", root=tmp_path)
    assert cache.is_unset()
    assert not cache.exists()
    assert cache.seconds_since_last_write() == 1e10
    with pytest.raises(LookupError):
        cache.get_cached_vector()


def test_on_disk_requires_root():
    with pytest.raises(ValueError):
        CachedData("no_root_here.txt")


def test_set_and_get_vector(tmp_path):
    cache = CachedData("pkgs.txt", root=tmp_path).set_cached_vector(["a", "b"])
    assert cache.exists()
    assert cache.get_cached_vector() == ["a", "b"]
    assert (tmp_path / "pkgs.txt").exists()
    with pytest.raises(IndexError):
        cache.get_cached_vector(1)


def test_file_format(tmp_path):
    CachedData("multi.txt", root=tmp_path).set_cached_vectors([["a", "b"], ["c", "d"]])
    content = (tmp_path / "multi.txt").read_text(encoding="utf-8")
    assert content == f"a\nb\n{SEPARATOR}\nc\nd\n\n"


def test_disk_round_trip(tmp_path):
    src = tmp_path / "one"
    dst = tmp_path / "two"
    CachedData("sub/data.txt", root=src).set_cached_vectors([["x", "y"], ["1", "2"]])
    dst.mkdir()
    (dst / "sub").mkdir()
    (dst / "sub" / "data.txt").write_bytes((src / "sub" / "data.txt").read_bytes())
    loaded = CachedData("sub/data.txt", root=dst)
    assert loaded.exists()
    assert loaded.get_cached_vector(0) == ["x", "y"]
    assert loaded.get_cached_vector(1) == ["1", "2"]


def test_read_hand_written_file(tmp_path):
    (tmp_path / "hand.txt").write_text(f"p\n{SEPARATOR}\nq\nr\n\n", encoding="utf-8")
    cache = CachedData("hand.txt", root=tmp_path)
    assert cache.get_cached_vector(0) == ["p"]
    assert cache.get_cached_vector(1) == ["q", "r"]


def test_empty_vector_round_trip(tmp_path):
    src = tmp_path / "a"
    CachedData("empty.txt", root=src).set_cached_vector([])
    dst = tmp_path / "b"
    dst.mkdir()
    (dst / "empty.txt").write_bytes((src / "empty.txt").read_bytes())
    assert CachedData("empty.txt", root=dst).get_cached_vector() == []


def test_shared_in_memory_between_instances(tmp_path):
    CachedData("shared.txt", root=tmp_path).set_cached_vector(["v"])
    other = CachedData("shared.txt", root=tmp_path)
    assert other.get_cached_vector() == ["v"]


def test_memory_only_cache(tmp_path):
    first = CachedData("mem_only_test", CachedData.Kind.ONLY_MEMORY)
    first.set_cached_vector(["m1", "m2"])
    assert first.seconds_since_last_write() == 0.0
    second = CachedData("mem_only_test", CachedData.Kind.ONLY_MEMORY)
    assert second.get_cached_vector() == ["m1", "m2"]
    assert list(tmp_path.iterdir()) == []


def test_unequal_sizes_rejected(tmp_path):
    cache = CachedData("uneq.txt", root=tmp_path)
    with pytest.raises(ValueError):
        cache.set_cached_vectors([["a"], ["b", "c"]])
    assert cache.is_unset()
    cache.set_cached_vectors([["a"], ["b", "c"]], equal_sizes=False)
    assert cache.get_cached_vector(1) == ["b", "c"]


def test_time_since_write_is_recent(tmp_path):
    cache = CachedData("time.txt", root=tmp_path).set_cached_vector(["t"])
    seconds = cache.seconds_since_last_write()
    assert 0 <= seconds < 60
    assert cache.hours_since_last_write() == pytest.approx(seconds / 3600.0)
    assert cache.days_since_last_write() == pytest.approx(seconds / 86400.0)
    assert cache.days_since_last_write() < 50


def test_returned_vector_is_a_copy(tmp_path):
    cache = CachedData("copy.txt", root=tmp_path).set_cached_vector(["a"])
    got = cache.get_cached_vector()
    got.append("b")
    assert cache.get_cached_vector() == ["a"]