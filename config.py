"""HomeStats Hub - Configuration defaults

Constants shared by the pollers, the config sync manager and the web
surface. Anything here can be overridden per source in dashboard.yaml;
credentials never live here, they come from the synced user config.

Refresh intervals (seconds):
  home_assistant / home_dashboard = 10
  proxmox / pihole                = 30
  media                           = 60
"""

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT = 12.0           # every outbound data call
CONNECTION_TEST_TIMEOUT = 10.0   # "test connection" requests
USER_AGENT = "HomeStatsHub/1.0"

# ---------------------------------------------------------------------------
# Refresh schedule
# ---------------------------------------------------------------------------
DEFAULT_INTERVAL = 30.0
REFRESH_INTERVALS = {
    "home_assistant": 10.0,
    "home_assistant_all": 10.0,
    "home_dashboard": 10.0,
    "proxmox": 30.0,
    "pihole": 30.0,
    "media": 60.0,
}

# Delay after a write so Home Assistant has converged before we re-read
SETTLE_DELAY = 0.5

# ---------------------------------------------------------------------------
# Sessions (Pi-hole login exchange)
# ---------------------------------------------------------------------------
SESSION_SAFETY_MARGIN = 60.0

# ---------------------------------------------------------------------------
# Home Assistant
# ---------------------------------------------------------------------------
# Shown when a source has no allowed_domains configured
DEFAULT_DISPLAYABLE_DOMAINS = frozenset([
    "light", "switch", "sensor", "binary_sensor", "climate",
    "fan", "cover", "lock", "media_player", "person",
    "device_tracker", "weather", "input_boolean",
])

# Domains whose toggle is a plain "<domain>.toggle" service call
SIMPLE_TOGGLE_DOMAINS = frozenset(["light", "switch", "input_boolean", "fan"])

# Entity ids the home dashboard reads
DASHBOARD_ENTITIES = {
    "garage_door": "cover.ratgdov25i_fada1e_door",
    "garage_camera": "camera.garage_high",
    "climates": {
        "family_room": "climate.family_room",
        "master_bedroom": "climate.master_bedroom",
    },
    "weather": [
        {"entity_id": "weather.forecast_fbf_greenhouse", "location": "Greenhouse"},
        {"entity_id": "weather.40_52965322226225_111_38917508069427", "location": "Heber City"},
        {"entity_id": "weather.forecast_lorang_ln", "location": "Bigfork"},
    ],
}

# Rooms -> member light entities, in display order
LIGHT_GROUPS = {
    "main_house": [
        {
            "id": "kitchen",
            "name": "Kitchen",
            "icon": "fork.knife",
            "entity_ids": [
                "light.kitchen", "light.kitchen_strip_1", "light.kitchen_strip_2",
                "light.kitchen_desk", "light.kitchen_bar_1", "light.kitchen_bar_2",
                "light.kitchen_bar_3", "light.kitchen_blender", "light.kitchen_oven",
                "light.kitchen_bay_window", "light.kitchen_sink_overhead",
                "light.kitchen_toaster", "light.kitchen_table", "light.kitchen_micro_middle",
            ],
        },
        {
            "id": "mbr",
            "name": "Master Bedroom",
            "icon": "bed.double.fill",
            "entity_ids": [
                "light.mbr", "light.master_bathroom", "light.master_hall",
                "light.mbr_closets", "light.master_bedroom_couch",
            ],
        },
        {"id": "living", "name": "Living Room", "icon": "sofa.fill", "entity_ids": ["light.living_rom"]},
        {"id": "dining", "name": "Dining Room", "icon": "chandelier.fill", "entity_ids": ["light.dinig_room"]},
        {"id": "office", "name": "Dad's Office", "icon": "desktopcomputer",
         "entity_ids": ["light.dads_office", "light.dads_light"]},
        {"id": "bar", "name": "Bar", "icon": "wineglass.fill", "entity_ids": ["light.bar"]},
        {"id": "jen", "name": "Jen's Room", "icon": "person.fill", "entity_ids": ["light.ollie"]},
        {"id": "gg", "name": "GG Room", "icon": "star.fill", "entity_ids": ["light.gg_room", "light.gg_window"]},
    ],
    "barn": [],
}

# ---------------------------------------------------------------------------
# Weather condition -> icon category
# ---------------------------------------------------------------------------
WEATHER_ICONS = {
    "sunny": "sun.max.fill",
    "clear": "sun.max.fill",
    "partlycloudy": "cloud.sun.fill",
    "partly-cloudy": "cloud.sun.fill",
    "cloudy": "cloud.fill",
    "rainy": "cloud.rain.fill",
    "rain": "cloud.rain.fill",
    "snowy": "cloud.snow.fill",
    "snow": "cloud.snow.fill",
    "fog": "cloud.fog.fill",
    "foggy": "cloud.fog.fill",
    "windy": "wind",
    "lightning": "cloud.bolt.fill",
    "thunderstorm": "cloud.bolt.fill",
}
DEFAULT_WEATHER_ICON = "cloud.fill"

# ---------------------------------------------------------------------------
# Proxmox
# ---------------------------------------------------------------------------
RUNNING_STATUSES = frozenset(["running", "online"])
RRD_TIMEFRAME = "day"

# ---------------------------------------------------------------------------
# Media cluster
# ---------------------------------------------------------------------------
PLEX_RECENT_SCAN_LIMIT = 20    # items considered from /library/recentlyAdded
RECENT_DISPLAY_COUNT = 5       # per media kind
CALENDAR_WINDOW_DAYS = 2
MOVIE_LIBRARY_LIMIT = 10
DOWNLOAD_QUEUE_LIMIT = 5

# ---------------------------------------------------------------------------
# Config sync
# ---------------------------------------------------------------------------
CLOUD_KEY = "HomeStatsConfig"
LOCAL_KEY = "HomeStatsConfig_Local"
REPLICA_QUOTA_BYTES = 1024 * 1024   # matches a typical cloud KV store limit
REPLICA_WATCH_INTERVAL = 5.0

DATA_DIR = "data"
REPLICA_DIR = "data/replica"
