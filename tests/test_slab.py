import pytest

from kcore.panic import KernelPanic
from kcore.pmm import MemoryMapEntry, PageAllocator
from kcore.slab import HHDM_OFFSET, NUM_SLABS, PAGE_SIZE, SlabAllocator


class FakePages:
    def __init__(self):
        self.handed_out = []

    def alloc(self):
        page = PAGE_SIZE * (len(self.handed_out) + 1)
        self.handed_out.append(page)
        return page


@pytest.fixture
def pages():
    return FakePages()


@pytest.fixture
def slab(pages):
    return SlabAllocator(pages)


def test_first_alloc_is_start_of_mapped_page(slab, pages):
    address = slab.alloc(16)
    assert address - HHDM_OFFSET == pages.handed_out[0]


def test_consecutive_objects_do_not_overlap(slab):
    addresses = [slab.alloc(24) for _ in range(10)]
    assert len(set(addresses)) == 10
    ordered = sorted(addresses)
    for lower, upper in zip(ordered, ordered[1:]):
        assert upper - lower >= 24


def test_objects_stay_inside_one_page(slab, pages):
    addresses = [slab.alloc(32) for _ in range(20)]
    base = HHDM_OFFSET + pages.handed_out[0]
    assert all(base <= a < base + PAGE_SIZE for a in addresses)


def test_free_then_alloc_reuses_address(slab):
    first = slab.alloc(48)
    slab.alloc(48)
    slab.free(first, 48)
    assert slab.alloc(48) == first


def test_free_is_lifo(slab):
    a = slab.alloc(16)
    b = slab.alloc(16)
    slab.free(a, 16)
    slab.free(b, 16)
    assert slab.alloc(16) == b
    assert slab.alloc(16) == a


def test_free_none_is_ignored(slab, pages):
    slab.free(None, 16)
    address = slab.alloc(16)
    assert address == HHDM_OFFSET + pages.handed_out[0]
    assert len(pages.handed_out) == 1


def test_full_page_then_new_page(slab, pages):
    per_page = PAGE_SIZE // 16
    addresses = {slab.alloc(16) for _ in range(per_page)}
    assert len(addresses) == per_page
    assert len(pages.handed_out) == 1

    extra = slab.alloc(16)
    assert len(pages.handed_out) == 2
    assert extra == HHDM_OFFSET + pages.handed_out[1]


def test_size_classes_use_separate_pages(slab, pages):
    small = slab.alloc(16)
    large = slab.alloc(256)
    assert len(pages.handed_out) == 2
    assert small // PAGE_SIZE != large // PAGE_SIZE


def test_largest_class_accepted(slab, pages):
    address = slab.alloc((NUM_SLABS - 1) * 16)
    assert address == HHDM_OFFSET + pages.handed_out[0]


def test_too_large_panics(slab):
    with pytest.raises(KernelPanic):
        slab.alloc(NUM_SLABS * 16 - 15)


def test_free_too_large_panics(slab):
    with pytest.raises(KernelPanic):
        slab.free(HHDM_OFFSET, NUM_SLABS * 16)


def test_zero_size_panics(slab):
    with pytest.raises(KernelPanic):
        slab.alloc(0)


def test_draws_pages_from_page_allocator():
    pmm = PageAllocator([MemoryMapEntry(base=0x100000, length=0x100000, usable=True)])
    before = pmm.info().used
    slab = SlabAllocator(pmm)
    slab.alloc(64)
    slab.alloc(64)
    assert pmm.info().used - before == PAGE_SIZE