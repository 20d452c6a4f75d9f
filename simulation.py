import argparse
import time

import matplotlib.pyplot as plt
import numpy as np
import requests

BASE_URL = "http://localhost:5000/api"
MODES = ["without-cache", "with-cache"]
LOOKUPS = {
    "getAllData": {},
    "getDataByCategory": {"category": "Electronics"},
    "getDataById": {"id": 1},
}


def clear_cache():
    response = requests.post(f"{BASE_URL}/performance/cache/clear")
    response.raise_for_status()
    return response.json()


def run_requests(api_name, mode, count):
    """Issue `count` measured calls and return their response times in ms"""
    params = {"mode": mode, **LOOKUPS[api_name]}
    times = []
    hits = 0
    for _ in range(count):
        response = requests.get(f"{BASE_URL}/performance/data", params=params)
        response.raise_for_status()
        body = response.json()
        times.append(body["responseTimeMs"])
        if body.get("cacheHit"):
            hits += 1
    print(f"  {api_name} [{mode}]: {count} calls, {hits} cache hits")
    return times


def get_statistics(api_name):
    response = requests.get(f"{BASE_URL}/performance/statistics", params={"api": api_name})
    response.raise_for_status()
    return response.json()


def plot_response_times(statistics):
    """Plot average response times per API, cached vs uncached"""
    api_names = list(statistics.keys())
    without_cache = [statistics[a]["withoutCache"]["avgResponseTime"] for a in api_names]
    with_cache = [statistics[a]["withCache"]["avgResponseTime"] for a in api_names]

    x = np.arange(len(api_names))
    width = 0.35

    fig, ax = plt.subplots(figsize=(12, 7))
    rects1 = ax.bar(x - width/2, without_cache, width, label='Without cache (ms)')
    rects2 = ax.bar(x + width/2, with_cache, width, label='With cache (ms)')

    ax.set_title('Average Response Time by API')
    ax.set_xlabel('API')
    ax.set_ylabel('Time (ms)')
    ax.set_xticks(x)
    ax.set_xticklabels(api_names)
    ax.legend()

    def autolabel(rects):
        for rect in rects:
            height = rect.get_height()
            ax.annotate(f'{height:.1f}',
                        xy=(rect.get_x() + rect.get_width() / 2, height),
                        xytext=(0, 3),
                        textcoords="offset points",
                        ha='center', va='bottom')

    autolabel(rects1)
    autolabel(rects2)

    fig.tight_layout()
    plt.savefig("response_times.png")


def plot_hit_rates(statistics):
    """Plot cache hit rates per API"""
    api_names = list(statistics.keys())
    hit_rates = [statistics[a]["withCache"]["cacheHitRate"] for a in api_names]

    plt.figure(figsize=(10, 6))
    plt.bar(api_names, hit_rates)
    plt.title("Cache Hit Rate by API")
    plt.xlabel("API")
    plt.ylabel("Hit Rate (%)")
    plt.ylim(0, 100)
    plt.tight_layout()
    plt.savefig("hit_rates.png")


def print_performance_analysis(statistics):
    print("\n===== PERFORMANCE ANALYSIS =====")
    for api_name, stats in statistics.items():
        with_cache = stats["withCache"]
        without_cache = stats["withoutCache"]
        print(f"\n{api_name}:")
        print(f"  Without cache: {without_cache['avgResponseTime']:.2f} ms avg "
              f"over {without_cache['totalRequests']} requests")
        print(f"  With cache:    {with_cache['avgResponseTime']:.2f} ms avg "
              f"over {with_cache['totalRequests']} requests")
        print(f"  Cache hits:    {with_cache['cacheHits']} ({with_cache['cacheHitRate']:.2f}%)")
        if stats.get("speedup"):
            print(f"  Speedup:       {stats['speedup']:.1f}x")


def main():
    parser = argparse.ArgumentParser(description="Compare cached and uncached lookups against a running server")
    parser.add_argument("--requests", type=int, default=20, help="measured calls per API and mode")
    args = parser.parse_args()

    time.sleep(2)

    print("Clearing cache...")
    clear_cache()

    for api_name in LOOKUPS:
        for mode in MODES:
            run_requests(api_name, mode, args.requests)

    statistics = {api_name: get_statistics(api_name) for api_name in LOOKUPS}

    plot_response_times(statistics)
    plot_hit_rates(statistics)
    print_performance_analysis(statistics)

    print("\nSimulation complete. Check response_times.png and hit_rates.png for visualizations.")


if __name__ == "__main__":
    main()
