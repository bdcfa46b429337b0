"""Maven-to-Bazel translation tables and target naming.

Pure mapping logic with no file I/O: the legacy Android support library
rewrite table, jetifier exclusion globs, and the string transformations that
turn Maven coordinates into Bazel packages and target labels.
"""

import re

# Prefix (package) under which each external fetch repository exposes its payload.
DOWNLOAD_PREFIX = "maven"

# Packagings whose payload is a JVM library; dependencies must stay on the same side.
JVM_PACKAGING_TYPES = frozenset({"jar", "aar", "bundle"})

# First characters identifying a string as an already-formed Bazel label.
BAZEL_LABEL_PREFIXES = ("@", "/", ":")

# Legacy (pre-androidX) support artifacts and their androidX successors.
# Based on https://developer.android.com/jetpack/androidx/migrate/artifact-mappings
JETIFIER_ARTIFACT_MAPPING = {
    "android.arch.core:common": "androidx.arch.core:core-common",
    "android.arch.core:core": "androidx.arch.core:core",
    "android.arch.core:core-testing": "androidx.arch.core:core-testing",
    "android.arch.core:runtime": "androidx.arch.core:core-runtime",
    "android.arch.lifecycle:common": "androidx.lifecycle:lifecycle-common",
    "android.arch.lifecycle:common-java8": "androidx.lifecycle:lifecycle-common-java8",
    "android.arch.lifecycle:compiler": "androidx.lifecycle:lifecycle-compiler",
    "android.arch.lifecycle:extensions": "androidx.lifecycle:lifecycle-extensions",
    "android.arch.lifecycle:livedata": "androidx.lifecycle:lifecycle-livedata",
    "android.arch.lifecycle:livedata-core": "androidx.lifecycle:lifecycle-livedata-core",
    "android.arch.lifecycle:reactivestreams": "androidx.lifecycle:lifecycle-reactivestreams",
    "android.arch.lifecycle:runtime": "androidx.lifecycle:lifecycle-runtime",
    "android.arch.lifecycle:viewmodel": "androidx.lifecycle:lifecycle-viewmodel",
    "android.arch.paging:common": "androidx.paging:paging-common",
    "android.arch.paging:runtime": "androidx.paging:paging-runtime",
    "android.arch.paging:rxjava2": "androidx.paging:paging-rxjava2",
    "android.arch.persistence.room:common": "androidx.room:room-common",
    "android.arch.persistence.room:compiler": "androidx.room:room-compiler",
    "android.arch.persistence.room:guava": "androidx.room:room-guava",
    "android.arch.persistence.room:migration": "androidx.room:room-migration",
    "android.arch.persistence.room:runtime": "androidx.room:room-runtime",
    "android.arch.persistence.room:rxjava2": "androidx.room:room-rxjava2",
    "android.arch.persistence.room:testing": "androidx.room:room-testing",
    "android.arch.persistence:db": "androidx.sqlite:sqlite",
    "android.arch.persistence:db-framework": "androidx.sqlite:sqlite-framework",
    "com.android.support.constraint:constraint-layout": "androidx.constraintlayout:constraintlayout",
    "com.android.support.constraint:constraint-layout-solver": "androidx.constraintlayout:constraintlayout-solver",
    "com.android.support.test.espresso.idling:idling-concurrent": "androidx.test.espresso.idling:idling-concurrent",
    "com.android.support.test.espresso.idling:idling-net": "androidx.test.espresso.idling:idling-net",
    "com.android.support.test.espresso:espresso-accessibility": "androidx.test.espresso:espresso-accessibility",
    "com.android.support.test.espresso:espresso-contrib": "androidx.test.espresso:espresso-contrib",
    "com.android.support.test.espresso:espresso-core": "androidx.test.espresso:espresso-core",
    "com.android.support.test.espresso:espresso-idling-resource": "androidx.test.espresso:espresso-idling-resource",
    "com.android.support.test.espresso:espresso-intents": "androidx.test.espresso:espresso-intents",
    "com.android.support.test.espresso:espresso-remote": "androidx.test.espresso:espresso-remote",
    "com.android.support.test.espresso:espresso-web": "androidx.test.espresso:espresso-web",
    "com.android.support.test.janktesthelper:janktesthelper": "androidx.test.jank:janktesthelper",
    "com.android.support.test.services:test-services": "androidx.test:test-services",
    "com.android.support.test.uiautomator:uiautomator": "androidx.test.uiautomator:uiautomator",
    "com.android.support.test:monitor": "androidx.test:monitor",
    "com.android.support.test:orchestrator": "androidx.test:orchestrator",
    "com.android.support.test:rules": "androidx.test:rules",
    "com.android.support.test:runner": "androidx.test:runner",
    "com.android.support:animated-vector-drawable": "androidx.vectordrawable:vectordrawable-animated",
    "com.android.support:appcompat-v7": "androidx.appcompat:appcompat",
    "com.android.support:asynclayoutinflater": "androidx.asynclayoutinflater:asynclayoutinflater",
    "com.android.support:car": "androidx.car:car",
    "com.android.support:cardview-v7": "androidx.cardview:cardview",
    "com.android.support:collections": "androidx.collection:collection",
    "com.android.support:coordinatorlayout": "androidx.coordinatorlayout:coordinatorlayout",
    "com.android.support:cursoradapter": "androidx.cursoradapter:cursoradapter",
    "com.android.support:customtabs": "androidx.browser:browser",
    "com.android.support:customview": "androidx.customview:customview",
    "com.android.support:design": "com.google.android.material:material",
    "com.android.support:documentfile": "androidx.documentfile:documentfile",
    "com.android.support:drawerlayout": "androidx.drawerlayout:drawerlayout",
    "com.android.support:exifinterface": "androidx.exifinterface:exifinterface",
    "com.android.support:gridlayout-v7": "androidx.gridlayout:gridlayout",
    "com.android.support:heifwriter": "androidx.heifwriter:heifwriter",
    "com.android.support:interpolator": "androidx.interpolator:interpolator",
    "com.android.support:leanback-v17": "androidx.leanback:leanback",
    "com.android.support:loader": "androidx.loader:loader",
    "com.android.support:localbroadcastmanager": "androidx.localbroadcastmanager:localbroadcastmanager",
    "com.android.support:media2": "androidx.media2:media2",
    "com.android.support:media2-exoplayer": "androidx.media2:media2-exoplayer",
    "com.android.support:mediarouter-v7": "androidx.mediarouter:mediarouter",
    "com.android.support:multidex": "androidx.multidex:multidex",
    "com.android.support:multidex-instrumentation": "androidx.multidex:multidex-instrumentation",
    "com.android.support:palette-v7": "androidx.palette:palette",
    "com.android.support:percent": "androidx.percentlayout:percentlayout",
    "com.android.support:preference-leanback-v17": "androidx.leanback:leanback-preference",
    "com.android.support:preference-v14": "androidx.legacy:legacy-preference-v14",
    "com.android.support:preference-v7": "androidx.preference:preference",
    "com.android.support:print": "androidx.print:print",
    "com.android.support:recommendation": "androidx.recommendation:recommendation",
    "com.android.support:recyclerview-selection": "androidx.recyclerview:recyclerview-selection",
    "com.android.support:recyclerview-v7": "androidx.recyclerview:recyclerview",
    "com.android.support:slices-builders": "androidx.slice:slice-builders",
    "com.android.support:slices-core": "androidx.slice:slice-core",
    "com.android.support:slices-view": "androidx.slice:slice-view",
    "com.android.support:slidingpanelayout": "androidx.slidingpanelayout:slidingpanelayout",
    "com.android.support:support-annotations": "androidx.annotation:annotation",
    "com.android.support:support-compat": "androidx.core:core",
    "com.android.support:support-content": "androidx.contentpager:contentpager",
    "com.android.support:support-core-ui": "androidx.legacy:legacy-support-core-ui",
    "com.android.support:support-core-utils": "androidx.legacy:legacy-support-core-utils",
    "com.android.support:support-dynamic-animation": "androidx.dynamicanimation:dynamicanimation",
    "com.android.support:support-emoji": "androidx.emoji:emoji",
    "com.android.support:support-emoji-appcompat": "androidx.emoji:emoji-appcompat",
    "com.android.support:support-emoji-bundled": "androidx.emoji:emoji-bundled",
    "com.android.support:support-fragment": "androidx.fragment:fragment",
    "com.android.support:support-media-compat": "androidx.media:media",
    "com.android.support:support-tv-provider": "androidx.tvprovider:tvprovider",
    "com.android.support:support-v13": "androidx.legacy:legacy-support-v13",
    "com.android.support:support-v4": "androidx.legacy:legacy-support-v4",
    "com.android.support:support-vector-drawable": "androidx.vectordrawable:vectordrawable",
    "com.android.support:swiperefreshlayout": "androidx.swiperefreshlayout:swiperefreshlayout",
    "com.android.support:textclassifier": "androidx.textclassifier:textclassifier",
    "com.android.support:transition": "androidx.transition:transition",
    "com.android.support:versionedparcelable": "androidx.versionedparcelable:versionedparcelable",
    "com.android.support:viewpager": "androidx.viewpager:viewpager",
    "com.android.support:wear": "androidx.wear:wear",
    "com.android.support:webkit": "androidx.webkit:webkit",
}


def group_path(group_id: str) -> str:
    """Bazel package path for a groupId (``com.google.guava`` -> ``com/google/guava``)."""
    return group_id.replace(".", "/")


def target_name(artifact_id: str) -> str:
    """Bazel target name for an artifactId (``javax.inject`` -> ``javax_inject``)."""
    return artifact_id.replace(".", "_").replace("-", "_")


def fetch_repo_package(group_id: str, artifact_id: str) -> str:
    """Label of the external repository package holding an artifact's downloaded payload.

    Example:
        ``fetch_repo_package("javax.inject", "javax.inject")`` -> ``@javax_inject_javax_inject//maven``
    """
    group = group_id.replace(".", "_").replace("-", "_")
    artifact = artifact_id.replace(".", "_").replace("-", "_")
    return f"@{group}_{artifact}//{DOWNLOAD_PREFIX}"


def is_bazel_label(value: str) -> bool:
    return value.startswith(BAZEL_LABEL_PREFIXES)


def _glob_to_regex(glob: str):
    return re.compile(".*".join(re.escape(part) for part in glob.split("*")))


class ArtifactExclusionGlob:
    """A ``groupId:artifactId`` glob where ``*`` matches within one segment.

    Each segment is compiled once into an anchored regex. Globs that would
    match everything (``*:*``), that lack the colon, or that have no literal
    group or artifact component are rejected.

    Raises:
        ValueError: If the glob is not an acceptable exclusion pattern.
    """

    def __init__(self, glob: str):
        if glob == "*:*":
            raise ValueError(
                'Invalid exclusion glob "*:*" would exclude all artifacts. Set use_jetifier=False instead.'
            )
        if ":" not in glob:
            raise ValueError(f'Invalid exclusion glob "{glob}" lacks the groupId:artifactId structure.')
        remainder = glob.replace("*", "").replace(":", "").replace(".", "").strip()
        if not remainder:
            raise ValueError(
                f'Invalid exclusion glob "{glob}" - requires some valid partial group or artifact id'
            )
        self.glob = glob
        group_glob, artifact_glob = glob.split(":", 1)
        self._group_matcher = _glob_to_regex(group_glob)
        self._artifact_matcher = _glob_to_regex(artifact_glob)

    def matches(self, group_id: str, artifact_id: str) -> bool:
        return bool(
            self._group_matcher.fullmatch(group_id) and self._artifact_matcher.fullmatch(artifact_id)
        )

    def __repr__(self) -> str:
        return f"ArtifactExclusionGlob({self.glob!r})"


class JetifierMatcher:
    """Matches an artifact against any of a list of exclusion globs."""

    def __init__(self, matchers: list):
        self.matchers = list(matchers)

    def matches(self, group_id: str, artifact_id: str) -> bool:
        return any(m.matches(group_id, artifact_id) for m in self.matchers)
