"""
Test fixtures for build_descriptor.

Provides sample build scripts (Kotlin DSL and Groovy DSL) and Flutter
project trees for testing.
"""
from __future__ import annotations

import pytest
import textwrap
from pathlib import Path


# ── Sample build scripts ─────────────────────────────────────────────────────

FLUTTER_KTS = textwrap.dedent("""\
    plugins {
        id("com.android.application")
        id("kotlin-android")
        id("dev.flutter.flutter-gradle-plugin")
        id("com.google.gms.google-services")
    }

    android {
        namespace = "com.example.travelbuddy_final"
        compileSdk = flutter.compileSdkVersion
        ndkVersion = flutter.ndkVersion

        compileOptions {
            // 👇 Java 8 for desugaring
            sourceCompatibility = JavaVersion.VERSION_1_8
            targetCompatibility = JavaVersion.VERSION_1_8

            isCoreLibraryDesugaringEnabled = true
        }

        kotlinOptions {
            jvmTarget = "1.8"
        }

        defaultConfig {
            applicationId = "com.group1.travel_buddy"
            minSdk = flutter.minSdkVersion
            targetSdk = flutter.targetSdkVersion
            versionCode = flutter.versionCode
            versionName = flutter.versionName
        }

        buildTypes {
            release {
                signingConfig = signingConfigs.getByName("debug")
            }
        }
    }

    flutter {
        source = "../.."
    }

    dependencies {
        coreLibraryDesugaring("com.android.tools:desugar_jdk_libs:2.1.4")
    }
""")

GROOVY_GRADLE = textwrap.dedent("""\
    def localProperties = new Properties()
    def localPropertiesFile = rootProject.file('local.properties')
    if (localPropertiesFile.exists()) {
        localPropertiesFile.withReader('UTF-8') { reader ->
            localProperties.load(reader)
        }
    }

    def flutterVersionCode = localProperties.getProperty('flutter.versionCode')
    if (flutterVersionCode == null) {
        flutterVersionCode = '1'
    }

    def flutterVersionName = localProperties.getProperty('flutter.versionName')
    if (flutterVersionName == null) {
        flutterVersionName = '1.0'
    }

    def keystoreProperties = new Properties()
    def keystorePropertiesFile = rootProject.file('key.properties')
    if (keystorePropertiesFile.exists()) {
        keystoreProperties.load(new FileInputStream(keystorePropertiesFile))
    }

    apply plugin: 'com.android.application'
    apply plugin: 'kotlin-android'

    android {
        namespace "com.example.shop"
        compileSdkVersion 34

        compileOptions {
            sourceCompatibility JavaVersion.VERSION_17
            targetCompatibility JavaVersion.VERSION_17
        }

        kotlinOptions {
            jvmTarget = '17'
        }

        sourceSets {
            main.java.srcDirs += 'src/main/kotlin'
        }

        defaultConfig {
            applicationId "com.example.shop"
            minSdkVersion 23
            targetSdkVersion 34
            versionCode flutterVersionCode.toInteger()
            versionName flutterVersionName
        }

        signingConfigs {
            release {
                keyAlias keystoreProperties['keyAlias']
                keyPassword keystoreProperties['keyPassword']
                storeFile keystoreProperties['storeFile'] ? file(keystoreProperties['storeFile']) : null
                storePassword keystoreProperties['storePassword']
            }
        }

        buildTypes {
            release {
                signingConfig signingConfigs.release
                minifyEnabled true
                proguardFiles getDefaultProguardFile('proguard-android.txt'), 'proguard-rules.pro'
            }
        }
    }

    dependencies {
        implementation platform('com.google.firebase:firebase-bom:33.1.0')
        implementation 'com.google.firebase:firebase-analytics'
        implementation "androidx.core:core-ktx:1.13.1"
        implementation fileTree(dir: 'libs', include: ['*.jar'])
        testImplementation 'junit:junit:4.13.2'
    }
""")

RELEASE_KEYSTORE_KTS = textwrap.dedent("""\
    import java.util.Properties
    import java.io.FileInputStream

    plugins {
        id("com.android.application")
        kotlin("android")
    }

    val keystoreProperties = Properties()
    val keystorePropertiesFile = rootProject.file("key.properties")
    if (keystorePropertiesFile.exists()) {
        keystoreProperties.load(FileInputStream(keystorePropertiesFile))
    }

    android {
        namespace = "com.example.notes"
        compileSdk = 35

        compileOptions {
            sourceCompatibility = JavaVersion.VERSION_11
            targetCompatibility = JavaVersion.VERSION_11
        }

        kotlinOptions {
            jvmTarget = JavaVersion.VERSION_11.toString()
        }

        defaultConfig {
            applicationId = "com.example.notes"
            minSdk = 24
            targetSdk = 35
            versionCode = 7
            versionName = "2.3.0"
        }

        signingConfigs {
            create("release") {
                keyAlias = keystoreProperties["keyAlias"] as String
                keyPassword = keystoreProperties["keyPassword"] as String
                storeFile = keystoreProperties["storeFile"]?.let { file(it) }
                storePassword = keystoreProperties["storePassword"] as String
            }
        }

        buildTypes {
            getByName("release") {
                isMinifyEnabled = false
                signingConfig = signingConfigs.getByName("release")
            }
        }
    }

    dependencies {
        implementation("androidx.appcompat:appcompat:1.7.0")
        implementation(libs.androidx.activity)
        implementation(project(":core"))
    }
""")

PARSE_ERROR_KTS = textwrap.dedent("""\
    android {
        namespace = "com.example.broken"
        defaultConfig {
            applicationId = "com.example.broken"
    }
""")

KEY_PROPERTIES = textwrap.dedent("""\
    # release signing
    storePassword=s3cret
    keyPassword=s3cret
    keyAlias=upload
    storeFile=/home/dev/upload-keystore.jks
""")

LOCAL_PROPERTIES = textwrap.dedent("""\
    sdk.dir=C\\:\\\\Users\\\\dev\\\\Android\\\\sdk
    flutter.sdk=/opt/flutter
    flutter.versionName=1.4.2
    flutter.versionCode=12
""")


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def flutter_kts() -> str:
    return FLUTTER_KTS


@pytest.fixture
def groovy_gradle() -> str:
    return GROOVY_GRADLE


@pytest.fixture
def release_keystore_kts() -> str:
    return RELEASE_KEYSTORE_KTS


@pytest.fixture
def key_properties() -> dict:
    return {
        "storePassword": "s3cret",
        "keyPassword": "s3cret",
        "keyAlias": "upload",
        "storeFile": "/home/dev/upload-keystore.jks",
    }


@pytest.fixture
def flutter_project(tmp_path: Path) -> Path:
    """Flutter project tree; returns the app-module build file."""
    android = tmp_path / "android"
    app = android / "app"
    app.mkdir(parents=True)
    build_file = app / "build.gradle.kts"
    build_file.write_text(FLUTTER_KTS)
    (android / "local.properties").write_text(LOCAL_PROPERTIES)
    (app / "google-services.json").write_text("{}\n")
    return build_file


@pytest.fixture
def groovy_project(tmp_path: Path) -> Path:
    """Groovy-DSL project with release credentials in key.properties."""
    android = tmp_path / "android"
    app = android / "app"
    app.mkdir(parents=True)
    build_file = app / "build.gradle"
    build_file.write_text(GROOVY_GRADLE)
    (android / "key.properties").write_text(KEY_PROPERTIES)
    (android / "local.properties").write_text(LOCAL_PROPERTIES)
    return build_file


@pytest.fixture
def parse_error_file(tmp_path: Path) -> Path:
    path = tmp_path / "build.gradle.kts"
    path.write_text(PARSE_ERROR_KTS)
    return path


@pytest.fixture
def local_repo(tmp_path: Path) -> Path:
    """Maven-layout directory holding the desugaring library POM."""
    root = tmp_path / "m2"
    pom_dir = root / "com" / "android" / "tools" / "desugar_jdk_libs" / "2.1.4"
    pom_dir.mkdir(parents=True)
    (pom_dir / "desugar_jdk_libs-2.1.4.pom").write_text("<project/>\n")
    return root
