"""
Example: attribute histograms and selection.

Demonstrates how to use gssel for:
- Histograms of raw and derived attributes
- Linear versus log-scale buckets
- Selecting points by histogram bucket range
- Combining segmentation masks from several views
- Driving everything through the DataExplorer controller
"""

import logging

import numpy as np
from gsply import GSData

from gssel import (
    DataExplorer,
    Events,
    Histogram,
    MaskCombiner,
    MaskSet,
    PointAttributeStore,
    PredicateSelector,
    SelectOp,
    State,
    StateSelection,
    ValueResolver,
    ViewList,
)

# Configure logging to see selection statistics
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def generate_sample_data(n: int = 10000) -> GSData:
    """Generate sample Gaussian splat data for demonstration."""
    rng = np.random.default_rng(42)

    means = rng.standard_normal((n, 3)).astype(np.float32) * 2.0
    quats = rng.standard_normal((n, 4)).astype(np.float32)
    quats = quats / np.linalg.norm(quats, axis=1, keepdims=True)
    scales = rng.normal(-4.0, 1.0, (n, 3)).astype(np.float32)  # log scales
    opacities = rng.normal(0.0, 2.0, n).astype(np.float32)  # logits
    sh0 = rng.normal(0.0, 0.8, (n, 3)).astype(np.float32)

    # Add some oversized floaters
    outlier_idx = rng.choice(n, size=int(n * 0.01), replace=False)
    scales[outlier_idx] = 0.5

    return GSData(means=means, quats=quats, scales=scales, opacities=opacities, sh0=sh0, shN=None)


def print_histogram(result, width: int = 40):
    """Print a histogram as text bars."""
    peak = max(int(result.counts.max()), 1)
    for bucket in range(result.bucket_count):
        info = result.overlay_info(bucket)
        bar = "#" * (info.count * width // peak)
        print(f"  {info.value:10.4g} | {bar} {info.count}")


def example_1_attribute_histogram():
    """Example 1: Histogram of decoded opacity."""
    print("\n" + "=" * 70)
    print("EXAMPLE 1: Opacity Histogram")
    print("=" * 70)

    store = PointAttributeStore.from_gsdata(generate_sample_data())
    resolver = ValueResolver(store)

    print(f"Available attributes: {', '.join(resolver.available_keys())}")

    result = Histogram(16).build(resolver.resolve("opacity"), store.state)
    print(result)
    print_histogram(result)


def example_2_log_scale():
    """Example 2: Linear versus log-scale buckets for volume."""
    print("\n" + "=" * 70)
    print("EXAMPLE 2: Linear vs Log-Scale Volume Histogram")
    print("=" * 70)

    store = PointAttributeStore.from_gsdata(generate_sample_data())
    volume = ValueResolver(store).resolve("volume")
    histogram = Histogram(16)

    linear = histogram.build(volume, store.state, log_scale=False)
    log = histogram.build(volume, store.state, log_scale=True)

    print(f"Linear: {np.count_nonzero(linear.counts)} of 16 buckets occupied")
    print(f"Log:    {np.count_nonzero(log.counts)} of 16 buckets occupied")
    print_histogram(log)


def example_3_range_selection():
    """Example 3: Select the largest splats, then hide them."""
    print("\n" + "=" * 70)
    print("EXAMPLE 3: Bucket Range Selection")
    print("=" * 70)

    store = PointAttributeStore.from_gsdata(generate_sample_data())
    volume = ValueResolver(store).resolve("volume")
    result = Histogram(64).build(volume, store.state, log_scale=True)

    selector = PredicateSelector(result, StateSelection(store))
    changed = selector.select_range(SelectOp.REPLACE, 56, 63, volume, store.state)
    print(f"Selected {changed} splats in buckets [56, 63]")

    # Hide the selection; hidden splats drop out of every later histogram
    store.state[(store.state & State.SELECTED) != 0] = State.HIDDEN
    after = Histogram(64).build(volume, store.state, log_scale=True)
    print(f"Included before: {result.total_included}, after hiding: {after.total_included}")


def example_4_multi_view_masks():
    """Example 4: Intersect segmentation masks from several views."""
    print("\n" + "=" * 70)
    print("EXAMPLE 4: Multi-View Mask Combination")
    print("=" * 70)

    data = generate_sample_data()
    store = PointAttributeStore.from_gsdata(data)
    events = Events()
    views = ViewList(events)
    combiner = MaskCombiner(StateSelection(store, events), views, events)

    # In real use these come from segmenting rendered views
    views.add_auto(MaskSet.from_bool(data.means[:, 0] > 0.0))  # right half from the front
    views.add_auto(MaskSet.from_bool(data.means[:, 2] > 0.0))  # front half from the side
    views.summary(len(store))

    combiner.apply_views()
    print(f"Selected after intersecting views: {store.num_selected}")

    # Removing a view recomputes the selection
    views.remove("View 2")
    print(f"Selected after removing View 2: {store.num_selected}")

    # Narrow the selection with one more mask
    combiner.apply_mask(MaskSet.from_bool(data.means[:, 1] > 0.0), "and", store.state)
    print(f"Selected after AND with top half: {store.num_selected}")


def example_5_explorer():
    """Example 5: DataExplorer wired to an event bus."""
    print("\n" + "=" * 70)
    print("EXAMPLE 5: DataExplorer Controller")
    print("=" * 70)

    store = PointAttributeStore.from_gsdata(generate_sample_data())
    events = Events()
    explorer = DataExplorer(events)
    events.on("histogram.updated", lambda result: print(f"  histogram.updated: {result}"))

    events.fire("selection.changed", store)
    explorer.expand()
    print(f"Totals: {explorer.totals}")

    explorer.set_attribute("hue")
    explorer.select("replace", 0, 31)
    print(f"Selected reddish splats: {explorer.totals.selected}")


def main():
    """Run all examples."""
    print("\n" + "=" * 70)
    print("GSSEL SELECTION EXAMPLES")
    print("=" * 70)

    example_1_attribute_histogram()
    example_2_log_scale()
    example_3_range_selection()
    example_4_multi_view_masks()
    example_5_explorer()

    print("\n" + "=" * 70)
    print("ALL EXAMPLES COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()
