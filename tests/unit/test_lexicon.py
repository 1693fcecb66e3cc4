from misinfo_guard.lexicon import detect_population, primary_topic, topic_counts, treatment_risk_tags


def test_primary_topic_breaks_ties_in_lexicon_order() -> None:
    assert topic_counts("Antibiotics cure colds") == {"antibiotics": 1, "viral": 1}
    assert primary_topic("Antibiotics cure colds") == "antibiotics"
    assert primary_topic("I feel tired today") is None


def test_detect_population_priority() -> None:
    assert detect_population("Babies under 6 months should drink water") == "infant"
    assert detect_population("Pregnant women and children should avoid it") == "pregnancy"
    assert detect_population("Kids love it") == "child"
    assert detect_population("People with diabetes") == "chronic_condition"
    assert detect_population("Everyone should rest") == "general"


def test_treatment_risk_tags() -> None:
    assert treatment_risk_tags(
        "Once your blood pressure is normal on medication, you can stop taking it because you're cured."
    ) == ["stops_medication"]
    assert treatment_risk_tags(
        "Drinking alkaline water and taking high-dose vitamin C can cure any type of cancer "
        "naturally without chemotherapy or radiation."
    ) == ["delays_proven_treatment"]
    assert treatment_risk_tags("You should take antibiotics when you have a cold.") == ["antibiotic_misuse"]
    assert treatment_risk_tags("Vaccines cause autism") == ["vaccine_hesitancy"]
    assert treatment_risk_tags("Rest helps you recover from flu") == []


def test_stop_treatment_allows_modifiers_before_the_medicine() -> None:
    assert treatment_risk_tags("Stop taking your blood pressure medication once you feel better.") == [
        "stops_medication"
    ]
    assert treatment_risk_tags("You can quit your daily insulin") == ["stops_medication"]
    assert treatment_risk_tags("Stop worrying about colds") == []


def test_population_follows_the_subject_not_the_disease() -> None:
    assert detect_population("Smoking causes lung cancer") == "general"
    assert detect_population("Cancer patients should avoid sugar") == "chronic_condition"
    assert detect_population("Diabetics can stop taking insulin") == "chronic_condition"
    assert detect_population("Once your blood pressure is normal you can stop") == "chronic_condition"
