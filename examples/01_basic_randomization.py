"""
Basic Randomization Test Example
================================

This example demonstrates a randomization test for a small two-group study.
Each row is one unit; only the outcome under its own group is usually known.
"""

import randsim

# Example: Pilot study comparing a drug against placebo
# Research question: Could the observed difference be due to group assignment alone?

print("=" * 60)
print("BASIC RANDOMIZATION TEST EXAMPLE")
print("=" * 60)

# 1. Create a session and name the two groups
session = randsim.Session(column_names=("Placebo", "Drug"))

# 2. Enter data: (values per group, assigned group)
# None marks the outcome we did not observe for that unit
session.set_user_data(
    {
        "rows": [
            ([4.1, None], 0),
            ([5.0, None], 0),
            ([3.8, None], 0),
            ([4.6, None], 0),
            ([None, 6.9], 1),
            ([None, 7.4], 1),
            ([None, 6.2], 1),
            ([None, 7.9], 1),
        ]
    }
)

print("\nData entered:")
print(f"Groups: {session.column_names}")
print(f"Group means: {session.column_means()}")

# 3. Configure the run
session.set_seed(2137).set_simulations(5000)

# 4. Run the simulation with a progress line
print("\n" + "=" * 60)
print("SIMULATION RESULTS")
print("=" * 60)
session.start(progress_callback=True)
session.print_summary()

# 5. Switch statistic without re-running the simulation
print("\n" + "=" * 60)
print("OTHER STATISTICS (same trials)")
print("=" * 60)
for key, name in session.available_statistics().items():
    session.set_statistic(key)
    print(f"{name:<30} p = {session.p_value:.4f}")

print("\n" + "=" * 60)
print("INTERPRETATION GUIDE")
print("=" * 60)
print("""
Key takeaways:
- The p-value is the share of re-randomized trials at least as extreme
  as the observed statistic
- Changing the statistic reuses the existing trials
- Editing the data discards the finished run
""")
